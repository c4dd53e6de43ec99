# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publish pipeline for snpm.

A publish takes a repository URL, a version and an expected checksum, then
fetches the tagged source archive, extracts it, installs dependencies, runs
the build, and checks the artifact's SHA1. Nothing is stored: the only
result is "this version builds and matches its declared checksum".

Transports (HTTP and WebSocket) live in snpm.serving and talk to the
pipeline only through a StageReporter.
"""
