# -*- coding: utf-8 -*-
from setuptools import setup, find_packages


def get_long_description():

    for line in open('README.rst'):
        if '.. < package description' in line:
            break
        yield line

    for line in open('HISTORY.rst'):
        yield line


setup(
    name='labres',
    version='0.1.0',
    license='BSD',
    description='A library to book the machines of a lab',
    long_description=''.join(get_long_description()),
    long_description_content_type='text/x-rst',
    packages=find_packages('src'),
    package_dir={'': 'src'},
    include_package_data=True,
    zip_safe=False,
    platforms='any',
    python_requires='>=3.9',
    install_requires=[
        'psycopg2-binary',
        'pytz',
        'sedate',
        'SQLAlchemy>=2.0',
        'typing_extensions',
    ],
    extras_require=dict(
        test=[
            'pytest',
            'testing.postgresql',
        ],
    ),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Libraries :: Python Modules'
    ],
)
