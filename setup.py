from setuptools import find_packages, setup

setup(
    name='groundlink',
    version='1.0.0',
    description='Serial telemetry monitor and simulator for ground stations',
    author='isantolin',
    author_email='',
    packages=find_packages(include=['groundlink', 'groundlink.*']),
    python_requires='>=3.12',
    install_requires=[
        'pyserial',
        'pyserial-asyncio-fast',
        'msgspec',
        'marshmallow',
        'transitions',
        'prometheus-client',
        'uvloop',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'groundlink=groundlink.daemon:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
