from setuptools import setup, find_packages

setup(
    name="markov_diffusion",
    version="0.1.0",
    description="Upwind finite-difference generators and stationary distributions for 1D diffusion processes",
    author="Uri Maayan",
    author_email="uriuriuri7@hotmail.com",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.20.0",
        "numba>=0.53.0",
        "scipy>=1.7.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Mathematics",
    ],
    python_requires=">=3.8",
)
