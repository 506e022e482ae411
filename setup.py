from setuptools import setup, find_namespace_packages

setup(
    name='vm_bootstrap',
    version='0.1.0',
    package_dir={'': 'src'},
    packages=find_namespace_packages(where='src', include=['vm_bootstrap*']),
    python_requires='>=3.9',
    install_requires=[
        'typer',
        'pydantic>=2',
        'pyyaml',
        'rich',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'vm_bootstrap = vm_bootstrap.cli:run',
        ],
    },
)
