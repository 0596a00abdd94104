"""Install multiauth package."""

from setuptools import setup, find_packages

setup(
    name='multiauth',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    install_requires=[
        "flask",
        "click",
        "pyjwt[crypto]",
        "redis",
        "python-json-logger",
    ],
    extras_require={
        "test": ["pytest", "cryptography"],
    },
    entry_points={
        "console_scripts": [
            "multiauth-rotate-keys=multiauth.rotate_keys:rotate_keys",
        ],
    },
    zip_safe=False
)
