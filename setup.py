"""
AgentRelay - Registry, reputation and paid orchestration for service agents
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="agentrelay",
    version="1.0.0",
    author="ICE-CUBA",
    description="Agent registry with reputation scoring and x402-paid multi-agent orchestration",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/ICE-CUBA/AgentRelay",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.31.0",
        "httpx>=0.28.0",
    ],
    extras_require={
        "server": [
            "fastapi>=0.109.0",
            "uvicorn>=0.27.0",
            "pydantic>=2.5.0",
        ],
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
            "fastapi>=0.109.0",
            "pydantic>=2.5.0",
        ],
        "all": [
            "fastapi>=0.109.0",
            "uvicorn>=0.27.0",
            "pydantic>=2.5.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "agentrelay-server=agentrelay.api.server:run_server",
            "agentrelay=agentrelay.cli:main",
        ],
    },
)
