from setuptools import setup, find_packages

setup(
    name="question-pairs-pipeline",
    version="0.1",
    description="A multi-column text feature pipeline with topic features, weighted logistic regression and cross-validated grid search for duplicate question detection.",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main", "run_from_config"],
    package_data={"question_pairs": ["resources/*.txt"]},
    install_requires=[
        "pandas>=1.5.3",
        "numpy>=1.24.4",
        "scipy>=1.10",
        "pyyaml>=6.0.1",
        "matplotlib>=3.7.2",
        "seaborn>=0.12.2",
        "scikit-learn>=1.2.2",
        "joblib>=1.2",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    author="Your Name",
    author_email="your.email@example.com",
    url="https://github.com/yourusername/question-pairs-pipeline",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
