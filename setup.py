from setuptools import setup


setup(
    name="order-recon",
    version="0.1.0",
    description="Local Order Log header extraction, billing target counts and order reconciliation for CSV and Excel exports",
    packages=["order_recon"],
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "order-recon=order_recon.cli:main",
        ]
    },
)
