"""Setup script for Spotify Playlist Monitor."""

from setuptools import setup, find_packages
from pathlib import Path

# Read requirements
requirements_path = Path(__file__).parent / 'requirements.txt'
with open(requirements_path, 'r', encoding='utf-8') as f:
    requirements = [
        line.strip() for line in f
        if line.strip() and not line.startswith('#')
    ]

# Read README
readme_path = Path(__file__).parent / 'README.md'
with open(readme_path, 'r', encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='spotify-playlist-monitor',
    version='0.1.0',
    description='Background service that watches Spotify playlists and notifies about newly added tracks',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Spotify Playlist Monitor Contributors',
    python_requires='>=3.11',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=requirements,
    extras_require={
        'test': [
            'pytest>=8.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'spotify-playlist-monitor=spotify_playlist_monitor.cli:app',
            'playlist-monitor=spotify_playlist_monitor.cli:app',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
    ],
)
