# setup.py
from setuptools import setup, find_packages

setup(
    name="vip_hook",
    version="0.1.0",
    packages=find_packages(),
    python_requires=">=3.10",
    install_requires=[
        "msgpack",         # persisted state values
        "PyNaCl",          # ed25519 attestation keys
        "pycryptodome",    # keccak-256
        "plyvel",          # LevelDB storage
        "prometheus_client",  # metrics
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "vip-batch-tool=vip_hook.batch_tool:main",
        ],
    },
)
