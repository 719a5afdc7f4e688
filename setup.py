#!/usr/bin/env python3
from setuptools import setup

__version__ = "1.0.0"

setup(name='fossbot',
      version=__version__,
      description='An IRC bot with isolated command handlers',
      author='fossbot developers',
      packages=['fossbot', 'fossbot.modules'],
      python_requires='>=3.10',
      install_requires=[
          "PyYAML",
          "requests",
      ],
      extras_require={
          "sentry": ["sentry-sdk"],
          "test": ["pytest"],
      },
      entry_points={
          "console_scripts": [
              "fossbot = fossbot.cli:main",
          ]
      },
      zip_safe=False)
