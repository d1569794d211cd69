from setuptools import setup

setup(
    name='coursepress',
    version='0.1.0',
    packages=['coursepress',],
    description=(
        "Compile Markdown courses with Godot code includes into JSON"
        " artifacts"
    ),
    long_description=open('README.rst').read(),
    python_requires='>=3.8',
    install_requires=[
        'PyYAML',
        'Markdown',
        'Pygments',
        'lxml',
        'watchdog',
        'python-dotenv',
    ],
    extras_require=dict(test=['pytest',]),
    entry_points=dict(
        console_scripts=["coursepress = coursepress.command_line:main",])
)
