"""
Setup file.
"""

from setuptools import find_packages, setup

URL = "https://github.com/xcforge/xcforge"
KEYWORDS = "ios xcframework autotools cross-compile protobuf mosh lipo xcodebuild"


if __name__ == "__main__":
    setup(
        name="xcforge",
        version="0.1.0",
        description="Cross-compile autotools libraries for iOS and package them as xcframeworks",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        python_requires=">=3.10",
        install_requires=[
            "requests",
            "tqdm",
            "psutil",
        ],
        extras_require={
            "test": ["pytest"],
        },
        entry_points={
            "console_scripts": [
                "xcforge=xcforge.cli:main",
            ],
        },
        include_package_data=True)
