from setuptools import setup

setup(
    name="chat-encryption-overlay",
    version="0.1.0",
    description="Transparent end-to-end encryption overlay for third-party chat pages",
    author="debarshi17",
    author_email="your-email@example.com",
    package_dir={"": "src"},
    py_modules=[
        "content_renderer",
        "emoji_cache",
        "key_store",
        "message_codec",
        "outbound",
        "overlay",
        "page_source",
        "passphrase",
        "scan_loop",
        "session",
        "utils",
    ],
    install_requires=[
        "requests>=2.31.0",
        "beautifulsoup4>=4.12.2",
        "cryptography>=41.0.0",
        "fastapi>=0.109.0",
        "uvicorn>=0.27.0",
        "tqdm>=4.66.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "chat-overlay=overlay:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: End Users/Desktop",
        "Topic :: Security :: Cryptography",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
    ],
)
