from setuptools import setup, find_packages

setup(
    name="tailor-crm",
    version="1.0.0",
    packages=find_packages(include=["tailor_crm", "tailor_crm.*"]),
    package_data={"tailor_crm": ["sql/*.sql"]},
    install_requires=[
        "pydantic[email]>=2.0",
        "pydantic-settings>=2.0",
        "httpx>=0.24",
        "python-dotenv>=1.0",
        "supabase>=2.8",
        "fastapi>=0.100",
        "uvicorn>=0.20",
        "python-multipart>=0.0.6",
        "redis>=4.5",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "fakeredis>=2.20",
        ],
    },
    python_requires=">=3.9",
)
