from setuptools import setup

install_requires = [
    "boto3 >= 1.0.1",
    "botocore"
]

tests_require = [
    "mypy_extensions",
    "typing_extensions >= 4.6"
]

setup(name="s3_download",
      version="0.1.0",
      description="Python library for downloading S3 objects into strings or local files.",
      packages=["s3_download"],
      package_data={"s3_download": ["py.typed"]},
      python_requires=">=3.9",
      install_requires=install_requires,
      extras_require={"test": tests_require})
