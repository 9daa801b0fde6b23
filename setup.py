from setuptools import setup, find_namespace_packages

setup(
    name='manetsim',
    version='0.1',
    packages=find_namespace_packages(include=['manetsim*']),
    install_requires=[
        'matplotlib',
        'pandas',
        'simpy',
        'setuptools',
        'networkx',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['manetsim=manetsim.main:main'],
    },)
