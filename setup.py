from setuptools import setup, find_packages

# Read long description from README
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="rewatchkit",
    version="0.2.0",
    author="ReWatchKit Contributors",
    description="Track what video is playing on a page and remember where you stopped",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/rewatchkit/rewatchkit",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Video",
        "Topic :: Internet :: WWW/HTTP :: Browsers",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.8",
    install_requires=[
        "requests>=2.28.0",
        "yt-dlp>=2023.0.0",
        "beautifulsoup4>=4.12.0",
        "selenium>=4.10.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    include_package_data=True,
    keywords="video progress resume watch-history shadow-dom selenium youtube",
    project_urls={
        "Bug Reports": "https://github.com/rewatchkit/rewatchkit/issues",
        "Source": "https://github.com/rewatchkit/rewatchkit",
        "Documentation": "https://github.com/rewatchkit/rewatchkit#readme",
    },
)
