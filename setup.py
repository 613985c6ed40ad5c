# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.

from setuptools import find_packages, setup

setup(
    name='tablemanifest',
    version='0.1.0',
    maintainer='Apache Iceberg Devs',
    author_email='dev@iceberg.apache.org',
    description='Manifest writer, reader and copy operations for table-format metadata',
    keywords='iceberg manifest avro',
    python_requires='>=3.9',
    packages=find_packages(include=['tablemanifest', 'tablemanifest.*']),
    install_requires=['fastavro>=1.9.0',
                      'pyarrow>=12.0.0',
                      'pydantic>=2.7.0,<3.0.0',
                      'pyyaml>=6.0.0',
                      ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    license="Apache License 2.0",
    classifiers=[
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
