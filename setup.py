from setuptools import setup, find_packages

setup(
    name="pftrack",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "opencv-python>=4.5.0",
        "numpy>=1.21.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    author="Your Name",
    author_email="your.email@example.com",
    description="Histogram particle filter and distance toolkit for video object tracking",
    license="MIT",
    python_requires=">=3.8",
)
