# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""snpm, a build-verifying package registry."""

__version__ = "0.1.0"
