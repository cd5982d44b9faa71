"""
Import setuptools
"""
from setuptools import setup
from setuptools import find_packages

"""
Reading the requirements
"""
with open('requirements.txt') as f:
    content = f.readlines()
    requirements = [x.strip() for x in content if x.strip()]

"""
Setup of the project
"""
setup(name = 'popmix',
      version = '0.1.0',
      description= "Bayesian admixture model for population structure: collapsed Gibbs MCMC with label-switching correction",
      install_requires = requirements,
      extras_require = {'test': ['pytest']},
      packages=find_packages(exclude=['tests', 'tests.*']),
      python_requires = '>=3.9',
      author= "Matthieu de Hemptinne",
      author_email= "m.c.de.hemptinne@vu.nl",
      )
