from setuptools import setup, find_packages

setup(
    name="assessment-portal",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"assessment_portal": ["data/*.yaml"]},
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "pydantic>=2.5.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.26.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "assessment-portal=assessment_portal.main:main",
        ],
    },
    python_requires=">=3.11",
)
