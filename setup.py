"""Package setup for Sales Tax Engine."""

from setuptools import setup, find_packages

setup(
    name="sales-tax-engine",
    version="1.0.0",
    description="Transaction-time VAT, GST and US sales tax determination",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=["sales_tax", "sales_tax.*"]),
    package_data={"sales_tax": ["data/*.yaml", "data/*.csv"]},
    python_requires=">=3.10",
    install_requires=[
        "rich>=13.0",
        "pandas>=2.0",
        "requests>=2.28",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "sales-tax=sales_tax.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial :: Accounting",
    ],
    keywords="sales-tax vat gst reverse-charge nexus",
)
