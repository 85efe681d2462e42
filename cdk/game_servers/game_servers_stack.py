import logging

from aws_cdk import (
    Stack,
    Tags,
    CfnOutput
)
from constructs import Construct

from .base_stack import GameServersBaseStack
from .config import GameServersConfig
from .server import ImageProps, TaskDefinitionProps
from .servers.minecraft import MinecraftServer

logger = logging.getLogger(__name__)


class GameServersStack(Stack):
    """Top level stack: shared base resources plus one nested stack per game server"""

    def __init__(self, scope: Construct, construct_id: str,
                 config: GameServersConfig = None, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config or GameServersConfig()

        self._create_base()
        self._create_minecraft()

        self._apply_common_tags()
        self._create_outputs()

    def _create_base(self):
        """Shared network, registry and storage"""
        self.base = GameServersBaseStack(self, "GameServersBaseStack")

    def _create_minecraft(self):
        """Minecraft server stack wired to the base resources"""
        if self.config.docker_image:
            image_props = ImageProps(repository=self.config.docker_image)
        else:
            image_props = ImageProps(repository=self.base.repository, tag=self.config.image_tag)

        logger.info(
            "Minecraft task: %s CPU units, %s MiB, load balancer %s",
            self.config.cpu, self.config.memory,
            "enabled" if self.config.create_load_balancer else "disabled"
        )

        self.minecraft = MinecraftServer(
            self, "Minecraft",
            vpc=self.base.vpc,
            file_system=self.base.file_system,
            environment_file=self.config.environment_file,
            image_props=image_props,
            task_definition_props=TaskDefinitionProps(
                cpu=self.config.cpu,
                memory_limit_mib=self.config.memory
            ),
            create_load_balancer=self.config.create_load_balancer,
            health_check_allowed_cidr=self.config.health_check_allowed_ip,
            log_retention=self.config.log_retention
        )
        self.minecraft.add_dependency(self.base)

    def _apply_common_tags(self):
        """Tag every resource in the stack"""
        for key, value in self.config.common_tags.items():
            Tags.of(self).add(key, value)

    def _create_outputs(self):
        """Stack outputs"""
        CfnOutput(
            self, "RepositoryUri",
            value=self.base.repository.repository_uri,
            description="ECR repository URI"
        )

        CfnOutput(
            self, "VPCId",
            value=self.base.vpc.vpc_id,
            description="VPC ID"
        )

        CfnOutput(
            self, "EFSFileSystemId",
            value=self.base.file_system.file_system_id,
            description="EFS File System ID"
        )

        CfnOutput(
            self, "ECSClusterName",
            value=self.minecraft.cluster.cluster_name,
            description="ECS Cluster Name"
        )

        CfnOutput(
            self, "ECSServiceName",
            value=self.minecraft.service.service_name,
            description="ECS Service Name"
        )

        CfnOutput(
            self, "DashboardURL",
            value=f"https://{self.region}.console.aws.amazon.com/cloudwatch/home?region={self.region}#dashboards:name={self.minecraft.server_name}",
            description="CloudWatch Dashboard URL"
        )
