from setuptools import setup, find_packages
from pathlib import Path


package_name = 'ring_outlier_filter'
here = Path(__file__).parent


def read_requirements(name):
    requirements_path = here / "requirements" / name
    if not requirements_path.exists():
        return []
    with open(requirements_path, encoding="utf-8") as f:
        return [
            line.strip()
            for line in f
            if line.strip() and not line.startswith("#")
        ]


setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test', 'test.*']),
    package_data={
        package_name: ['params/*.yaml'],
    },
    install_requires=read_requirements("runtime.txt"),
    extras_require={
        'test': read_requirements("test.txt"),
    },
    zip_safe=True,
    description='Ring-continuity outlier filter and visibility estimator for rotating lidar point clouds',
    license='Apache-2.0',
    python_requires='>=3.8',
)
