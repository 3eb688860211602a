from setuptools import setup, find_packages

setup(
    name='netris_provision',
    version='1.0.0',
    description='Tool to provision platform networks on a Netris controller',
    license="http://www.apache.org/licenses/LICENSE-2.0",
    packages=find_packages(),
    include_package_data=True,
    package_data={
        'netris_provision': ['templates/*.yaml', 'testdata/*'],
    },
    zip_safe=False,
    entry_points={
        'console_scripts': [
            'netris-provision=netris_provision.netris_provision:main',
        ]
    },
    install_requires=[
          'requests',
          'urllib3',
          'pyyaml',
          'jinja2',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
)
