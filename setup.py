import os
import re

from setuptools import setup


def get_version():
    module_init = 'fanalight/version.py'

    if not os.path.isfile(module_init):
        module_init = '../' + module_init
        if not os.path.isfile(module_init):
            raise ValueError('Unable to determine version!')

    with open(module_init) as version_file:
        return re.search(r'__version__\s*=\s*[\'"]([^\'"]*)[\'"]',
                         version_file.read()).group(1)


setup(name='fanalight',
      version=get_version(),
      description='LED and display control for Fanatec steering wheels',
      license='LGPL',
      platforms='Linux',
      packages=['fanalight', 'fanalight.server'],
      entry_points={
          'console_scripts': [
              'fanalight = fanalight.cli:run_cli'
          ]
      },
      python_requires='>=3.10',
      install_requires=['argcomplete', 'coloraide', 'colorlog', 'hidapi',
                        'numpy', 'ruamel.yaml', 'wrapt'],
      extras_require={
          'test': ['pytest']
      },
      keywords='fanatec wheel led hid display',
      include_package_data=True,
      zip_safe=False,
      classifiers=[
          'Development Status :: 3 - Alpha',
          'Environment :: Console',
          'Intended Audience :: Developers',
          'Intended Audience :: End Users/Desktop',
          'License :: OSI Approved :: GNU Lesser General Public License v3 (LGPLv3)',
          'Operating System :: POSIX :: Linux',
          'Programming Language :: Python :: 3 :: Only',
          'Topic :: System :: Hardware :: Hardware Drivers'
      ])
