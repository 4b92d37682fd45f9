import os
from setuptools import setup, find_packages
from setuptools.command.build_py import build_py as _build

CLASSIFIERS = [
    'Operating System :: POSIX',
    'Operating System :: MacOS :: MacOS X',
    'Intended Audience :: Education',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Topic :: Internet :: WWW/HTTP :: WSGI :: Application'
]

PKGDIR = os.path.dirname(os.path.abspath(__file__))
PYDIR = os.path.join(PKGDIR, 'python')

def get_version():
    out = "dev"
    versfile = os.path.join(PKGDIR, 'VERSION')
    if os.path.exists(versfile):
        with open(versfile) as fd:
            parts = fd.readline().split()
        if len(parts) > 0:
            out = parts[-1]
    else:
        out = "(unknown)"
    return out

def write_version_mod(version):
    versmodf = os.path.join(PYDIR, "usi", "version.py")
    with open(versmodf, 'w') as fd:
        fd.write('"""')
        fd.write("""
An identification of the system version.  Note that this module file gets
(over-) written by the build process.
""")
        fd.write('"""\n\n')
        fd.write('__version__ = "')
        fd.write(version)
        fd.write('"\n')

class build(_build):

    def run(self):
        write_version_mod(get_version())
        _build.run(self)

setup(name='usi-webapi',
      version=get_version(),
      description="usi: a REST web service for verifying Unique Student Identifiers (USIs)",
      python_requires='>=3.8',
      package_dir={'': 'python'},
      packages=find_packages(where='python', include=['usi', 'usi.*']),
      scripts=[ 'scripts/usi-uwsgi.py' ],
      install_requires=[ 'requests', 'PyYAML' ],
      extras_require={ 'test': [ 'pytest' ] },
      cmdclass={'build_py': build},
      classifiers=CLASSIFIERS,
      zip_safe=False
)
