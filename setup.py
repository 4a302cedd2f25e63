from setuptools import setup, find_packages

setup(
    name="reliable-mail-queue",
    version="0.1.0",
    description="Durable, prioritized, retrying email delivery queue with an audit trail",
    author="",
    author_email="",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"mailqueue": ["templates/*.jinja2"]},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "SQLAlchemy>=2.0.0",
        "Jinja2>=3.0.0",
        "email-validator>=2.0.0",
        "sendgrid>=6.9.0",
        "python-dotenv>=0.19.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "PyYAML>=5.4.0",
        "typer>=0.9.0",
        "rich>=12.0.0",
        "python-dateutil>=2.8.0",
        "Flask>=2.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mailqueue=mailqueue.cli:main",
        ],
    },
)
