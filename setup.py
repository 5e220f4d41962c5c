from setuptools import setup, find_packages

setup(name='aiocetcd',
      version='0.1.0',
      description='cluster aware asyncio client for the etcd v2 api',
      packages=find_packages(include=['aiocetcd', 'aiocetcd.*']),
      scripts=['bin/cetcd.py'],
      classifiers=[
          'Development Status :: 4 - Beta',
          'Environment :: Console',
          'Intended Audience :: Developers',
          'License :: OSI Approved :: MIT License',
          'Programming Language :: Python :: 3.8',
          'Programming Language :: Python :: 3.9',
          'Programming Language :: Python :: 3.10',
          'Programming Language :: Python :: 3.11',
          'Programming Language :: Python :: 3 :: Only',
          'Operating System :: POSIX',
          'Topic :: System :: Distributed Computing',
      ],

      install_requires=[
          'aiohttp >= 3.8',
          'python-dateutil',
          'sentry-sdk >= 1.3.1',
      ],
      extras_require={
          'test': [
              'pytest',
              'pytest-asyncio',
          ],
      },
      python_requires='>=3.8',
)
