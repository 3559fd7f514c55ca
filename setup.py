from setuptools import setup, find_packages

import re

VERSIONFILE = "straightener/__init__.py"
verstrline = open(VERSIONFILE, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    verstr = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (VERSIONFILE,))

with open('requirements.txt') as f:
    requirements = f.read().splitlines()
    requirements = [l for l in requirements if l and not l.startswith('#')]

setup(
    name='straightener',
    version=verstr,
    packages=find_packages(include=['straightener', 'straightener.*']),
    license='GNU GPL V3',
    description='Python 3 library to compute straightening skeletons, cages '
                'and deformation constraints for tetrahedral meshes',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    keywords='tetrahedral mesh skeleton extraction level sets straightening deformation',
    classifiers=[
        'Development Status :: 3 - Alpha',

        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Bio-Informatics',

        'License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)',

        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
    install_requires=requirements,
    extras_require={'test': ['pytest']},
    python_requires='>=3.8',
    include_package_data=True,
    zip_safe=False
)
