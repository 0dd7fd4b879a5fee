from setuptools import setup

# Read version from connwatch/VERSION
with open('connwatch/VERSION') as f:
    VERSION = f.read().strip()

setup(
    name='connwatch',
    version=VERSION,
    description='Curses dashboard of the active and past network connections of one process (using lsof)',
    long_description=open('README.md', encoding='utf-8').read(),
    long_description_content_type='text/markdown',
    license='MIT',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Topic :: System :: Networking :: Monitoring',
    ],
    python_requires='>=3.7',
    packages=['connwatch'],
    package_data={'connwatch': ['VERSION']},
    install_requires=[
        'psutil',
        'pyyaml',
    ],
    entry_points={
        'console_scripts': [
            'connwatch=connwatch:cli_entry',
        ],
    },
)
