from aws_cdk import (
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_efs as efs,
    NestedStack,
    RemovalPolicy
)
from constructs import Construct

from .networking import Networking


class GameServersBaseStack(NestedStack):
    """Shared networking, container registry and storage for the game servers"""

    def __init__(self, scope: Construct, construct_id: str,
                 repository_name: str = "minecraft", volume_name: str = "Minecraft", **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.repository = ecr.Repository(
            self, "MinecraftRepository",
            repository_name=repository_name,
            image_scan_on_push=True,
            removal_policy=RemovalPolicy.DESTROY
        )

        network = Networking(self, "MinecraftNetwork")
        self.vpc = network.vpc
        self.security_group = network.security_group

        self.file_system = self.create_efs_volume(volume_name)

    def create_efs_volume(self, name: str) -> efs.FileSystem:
        """Encrypted, backed up EFS volume reachable only through its own security group"""
        security_group = ec2.SecurityGroup(
            self, f"{name}EfsSecurityGroup",
            security_group_name=f"{name} EFS",
            description=f"Allow access to the {name} EFS volume",
            allow_all_outbound=False,
            vpc=self.vpc
        )

        file_system = efs.FileSystem(
            self, name,
            file_system_name=name,
            vpc=self.vpc,
            security_group=security_group,
            encrypted=True,
            enable_automatic_backups=True,
            lifecycle_policy=efs.LifecyclePolicy.AFTER_30_DAYS,
            # World data must survive a stack deletion
            removal_policy=RemovalPolicy.RETAIN
        )

        file_system.add_access_point(f"{name}AccessPoint")

        return file_system
