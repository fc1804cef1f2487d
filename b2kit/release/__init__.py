# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release pipeline for b2kit's own distribution.

Computes the publish version, stamps descriptors, signs, checksums and
bundles the artifacts in dist/ into an immutable release directory, verifies
it, and publishes the bundle to a B2 bucket.
"""
