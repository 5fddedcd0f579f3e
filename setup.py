from setuptools import setup

setup(
    name='bcsmarshal',
    version='0',
    packages=['bcsmarshal'],
    python_requires='>=3.8',
    install_requires=['numpy'],
    extras_require={
        'test': ['pytest'],
    },
    license='Apache-2.0',
    author='bcsmarshal developers',
    author_email='',
    description='Type-driven BCS marshalling of Move call arguments for Sui transactions.'
)
