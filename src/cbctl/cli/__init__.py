# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
CLI modules for cbctl.

Available commands:
- submit: Submit a build to Cloud Build and stream its log
"""
