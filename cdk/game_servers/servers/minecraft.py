import os
from typing import Optional

from aws_cdk import (
    aws_cloudwatch as cloudwatch,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_efs as efs,
    aws_iam as iam,
    aws_logs as logs,
    Duration
)
from constructs import Construct

from ..server import (
    HealthCheckProps,
    ImageProps,
    NetworkProps,
    Server,
    ServerProps,
    TaskDefinitionProps
)

METRICS_NAMESPACE = "GameServers/Minecraft"


class MinecraftServer(Server):
    """Modded Minecraft server with player count, TPS and tick time graphs"""

    PORT = 25565
    HEALTH_CHECK_PORT = 8443

    # The worlds added by both Minecraft and various mods. Used in graphs
    WORLDS = [
        "Overall:",
        "appliedenergistics2:spatial_storage",
        "compactmachines:compact_world",
        "jamd:mining",
        "javd:void",
        "minecraft:overworld",
        "minecraft:the_end",
        "minecraft:the_nether",
        "mythicbotany:alfheim",
        "rats:ratlantis",
        "twilightforest:skylight_forest",
        "twilightforest:twilightforest",
        "undergarden:undergarden",
        "woot:tartarus"
    ]

    def __init__(self, scope: Construct, construct_id: str, *,
                 vpc: ec2.IVpc, image_props: ImageProps, environment_file: str,
                 file_system: Optional[efs.FileSystem] = None,
                 task_definition_props: Optional[TaskDefinitionProps] = None,
                 container_definition_props: Optional[dict] = None,
                 create_load_balancer: bool = False,
                 health_check_allowed_cidr: Optional[str] = None,
                 log_retention: logs.RetentionDays = logs.RetentionDays.ONE_WEEK,
                 **kwargs) -> None:
        if not environment_file:
            raise ValueError(f"{construct_id}: environment_file is required")
        if not os.path.isfile(environment_file):
            raise FileNotFoundError(f"{construct_id}: environment file not found: {environment_file}")

        props = ServerProps(
            vpc=vpc,
            image_props=image_props,
            network_props=NetworkProps(
                port=self.PORT,
                protocol=ecs.Protocol.TCP,
                health_check=HealthCheckProps(
                    health_check_port=self.HEALTH_CHECK_PORT,
                    protocol=ecs.Protocol.TCP,
                    allowed_cidr=health_check_allowed_cidr
                ),
                create_load_balancer=create_load_balancer
            ),
            task_definition_props=task_definition_props,
            environment_file=environment_file,
            container_definition_props=container_definition_props or {},
            file_system=file_system,
            log_retention=log_retention
        )
        super().__init__(scope, construct_id, props, **kwargs)

        # Lets the container register its public IP in Route 53 on startup
        self.task_role.add_to_policy(iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=[
                "ec2:DescribeNetworkInterfaces",
                "ecs:DescribeTasks",
                "route53:ChangeResourceRecordSets",
                "route53:ListHostedZonesByName"
            ],
            resources=["*"]
        ))

    def container_definition(self, props: ServerProps) -> dict:
        options = super().container_definition(props)
        options.update({
            "health_check": ecs.HealthCheck(
                command=["CMD-SHELL", f"curl -f http://localhost:{self.HEALTH_CHECK_PORT}"],
                start_period=Duration.minutes(5)
            ),
            "logging": ecs.LogDrivers.aws_logs(
                stream_prefix="minecraft",
                log_group=self.log_group
            ),
        })
        options.update(props.container_definition_props)
        return options

    def game_metric(self, metric_name: str, dimension: Optional[str] = None) -> cloudwatch.Metric:
        dimensions = {"ServerName": self.service.service_name}
        if dimension is not None:
            dimensions["dimension"] = dimension
        return cloudwatch.Metric(
            namespace=METRICS_NAMESPACE,
            metric_name=metric_name,
            dimensions_map=dimensions
        )

    def per_world_graph(self, title: str, metric_name: str, show_units: bool) -> cloudwatch.GraphWidget:
        return cloudwatch.GraphWidget(
            title=title,
            height=6,
            width=12,
            left=[self.game_metric(metric_name, world) for world in self.WORLDS],
            left_y_axis=cloudwatch.YAxisProps(min=0, show_units=show_units)
        )

    def add_metrics(self, dashboard: cloudwatch.Dashboard) -> None:
        dashboard.add_widgets(
            self.utilization_graph(
                "CPU & Memory VS Player Count",
                right=[self.game_metric("PlayerCount")],
                right_y_axis=cloudwatch.YAxisProps(min=0, show_units=False)
            ),
            self.utilization_graph(
                "CPU & Memory Vs Tick Time",
                right=[self.game_metric("Tick Time", "Overall:")],
                right_y_axis=cloudwatch.YAxisProps(min=0, show_units=True)
            ),
            self.per_world_graph("TPS by World", "TPS", show_units=False),
            self.per_world_graph("Tick Time by World", "Tick Time", show_units=True)
        )
