"""
AWS adapters used by the deployment orchestrator.

Each module wraps one external collaborator: the ECR registry, the docker
image builder, the CloudFormation stack provider and EBS backups.
"""
