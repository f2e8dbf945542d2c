from setuptools import setup, find_packages

setup(
    name="video-automation-studio",
    version="0.1.0",
    description="Backend that assembles narrated, scored videos from Drive clips and publishes them to YouTube",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.31.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "structlog>=23.1.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "openai>=1.0.0",
        "google-api-python-client>=2.100.0",
        "google-auth>=2.23.0",
        "pysrt>=1.1.2",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "hypothesis>=6.82.0",
            "httpx>=0.25.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.5.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "video-studio=video_automation_studio.cli:main",
        ],
    },
)
