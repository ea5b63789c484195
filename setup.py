from setuptools import setup, find_packages
setup(
    name="school_finder",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "fastapi<0.137",
        "httpx",
        "pydantic>=2",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'school_finder=school_finder.__main__:_safe_main'
        ]
    }
)
