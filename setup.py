import setuptools

if __name__ == "__main__":
    setuptools.setup(
        name="facetvf",
        version="1.0.0",
        description="Deterministic triangle-to-triangle view-factor engine with occlusion, CPU and CUDA paths",
        long_description=open("README.md", encoding="utf-8").read(),
        long_description_content_type="text/markdown",
        license="GPL-3.0-only",
        python_requires=">=3.9",
        packages=setuptools.find_packages(where="src"),
        package_dir={"": "src"},
        install_requires=[
            "numpy>=1.24,<3.0",
            "numba>=0.59",
            "trimesh>=4.0",
            "requests>=2.28",
        ],
        extras_require={
            "test": ["pytest>=7"],
        },
        entry_points={
            "console_scripts": ["facetvf=facetvf.cli:main"],
        },
        classifiers=[
            "Programming Language :: Python :: 3",
            "Programming Language :: Python :: 3 :: Only",
            "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
            "Operating System :: OS Independent",
        ]
    )
