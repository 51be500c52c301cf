from setuptools import find_packages, setup

setup(
    name="collab-slides-backend",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["app", "database"],
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "sqlalchemy>=2.0",
        "pydantic[email]>=2.5",
        "python-jose[cryptography]>=3.3",
        "bcrypt>=4.0",
        "python-multipart>=0.0.9",
        "python-dotenv>=1.0",
        "pyyaml>=6.0",
        "aiohttp>=3.9",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "httpx>=0.25",
        ],
    },
    description="Backend package for collaborative slide editing (projects, slides, live collaboration)",
    author="Andreas Malathouras",
    author_email="steelstridertgm@gmail.com",
)
