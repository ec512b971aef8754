from setuptools import setup


setup(
    name="cutoff-intake",
    version="0.1.0",
    description="Validate and append JoSAA cutoff CSV exports to a normalized admissions dataset",
    packages=["cutoff_intake"],
    python_requires=">=3.10",
    install_requires=[
        "pandas",
        "chardet",
        "streamlit",
        "requests",
        "pydantic>=2",
        "pydantic-settings>=2",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cutoff-intake=cutoff_intake.cli:main",
        ]
    },
)
