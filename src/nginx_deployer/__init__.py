"""
Nginx container deployer for AWS.

Creates an ECR repository, builds and pushes the Nginx image, provisions a
CloudFormation stack per region and optionally snapshots the host volume.
"""

__version__ = "0.1.0"
