import logging
from dataclasses import asdict, dataclass, field
from typing import Optional, Union

from aws_cdk import (
    aws_cloudwatch as cloudwatch,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecs as ecs,
    aws_efs as efs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_logs as logs,
    aws_s3 as s3,
    CfnOutput,
    Duration,
    NestedStack,
    RemovalPolicy
)
from constructs import Construct

from .common_roles import CommonRoles
from .networking import SUBNET_GROUP_NAME

logger = logging.getLogger(__name__)

NFS_PORT = 2049


@dataclass(frozen=True)
class ImageProps:
    """Where the container image comes from: an ECR repository or a registry image name"""
    repository: Union[ecr.IRepository, str]
    tag: Optional[str] = None


@dataclass(frozen=True)
class HealthCheckProps:
    health_check_port: int
    protocol: ecs.Protocol = ecs.Protocol.TCP
    # CIDR allowed to reach the health check port, any IPv4 when unset
    allowed_cidr: Optional[str] = None


@dataclass(frozen=True)
class NetworkProps:
    port: int
    protocol: ecs.Protocol = ecs.Protocol.TCP
    health_check: Optional[HealthCheckProps] = None
    create_load_balancer: bool = False


@dataclass(frozen=True)
class TaskDefinitionProps:
    cpu: Optional[int] = None
    memory_limit_mib: Optional[int] = None

    def as_kwargs(self) -> dict:
        """Only the settings that were given, so CDK defaults apply to the rest"""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class ServerProps:
    vpc: ec2.IVpc
    image_props: ImageProps
    network_props: NetworkProps
    task_definition_props: Optional[TaskDefinitionProps] = None
    environment_file: Optional[str] = None
    # Extra add_container() options, applied over the defaults
    container_definition_props: dict = field(default_factory=dict)
    file_system: Optional[efs.FileSystem] = None
    log_retention: logs.RetentionDays = logs.RetentionDays.ONE_WEEK


class Server(NestedStack):
    """
    Generic game server stack: one Fargate task behind its own cluster and
    security group, with an optional NLB and a CloudWatch dashboard.

    Subclasses customise the container through ``container_definition`` and
    the dashboard through ``add_metrics``.
    """

    def __init__(self, scope: Construct, construct_id: str, props: ServerProps, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        if props.network_props is None:
            raise ValueError(f"{construct_id}: network_props is required")

        self.server_name = construct_id
        self.vpc = props.vpc

        self.subnet = ec2.SubnetSelection(subnet_group_name=SUBNET_GROUP_NAME)

        self.security_group = self.create_security_group(props)

        self.log_group = logs.LogGroup(
            self, "LogGroup",
            log_group_name=self.stack_name,
            retention=props.log_retention,
            removal_policy=RemovalPolicy.DESTROY
        )

        self.task_role = CommonRoles.task_role(self, construct_id)
        self.task_execution_role = CommonRoles.task_execution_role(
            self, construct_id,
            log_group=self.log_group,
            repository=props.image_props.repository
            if isinstance(props.image_props.repository, ecr.Repository) else None
        )

        self.cluster = self.create_cluster(props)

        self.task_definition = self.create_task_definition(props)
        self.container = self.task_definition.add_container(
            construct_id, **self.container_definition(props)
        )
        self.container.add_port_mappings(ecs.PortMapping(
            container_port=props.network_props.port,
            host_port=props.network_props.port,
            protocol=props.network_props.protocol
        ))

        if props.file_system:
            self.add_container_efs_volume(self.task_definition, props.file_system)
            self.add_container_mount_points(self.server_name, self.container)

        if props.network_props.health_check:
            self.add_health_check(self.container, props.network_props.health_check)

        if self.container.environment_files:
            self.add_access_to_environment_files(self.container.environment_files)

        self.service = self.create_service(self.cluster, self.task_definition, self.subnet, self.security_group)

        self.load_balancer = None
        if props.network_props.create_load_balancer:
            self.load_balancer = self.create_load_balancer(self.vpc, self.subnet, self.service, props)

        self.dashboard = self.create_dashboard(self.server_name)
        self.add_metrics(self.dashboard)

    def create_security_group(self, props: ServerProps) -> ec2.SecurityGroup:
        network_props = props.network_props
        security_group = ec2.SecurityGroup(
            self, "SecurityGroup",
            security_group_name=self.server_name,
            description=f"{self.server_name} Security Group",
            allow_all_outbound=False,
            vpc=self.vpc
        )

        security_group.add_egress_rule(
            ec2.Peer.any_ipv4(),
            ec2.Port.tcp(443),
            "Allow outbound HTTPS traffic"
        )

        if network_props.protocol == ecs.Protocol.TCP:
            port = ec2.Port.tcp(network_props.port)
        else:
            port = ec2.Port.udp(network_props.port)
        security_group.add_ingress_rule(
            ec2.Peer.any_ipv4(),
            port,
            f"Ingress on port {network_props.port} for {self.server_name}"
        )

        health_check = network_props.health_check
        if health_check:
            peer = ec2.Peer.ipv4(health_check.allowed_cidr) if health_check.allowed_cidr else ec2.Peer.any_ipv4()
            security_group.add_ingress_rule(
                peer,
                ec2.Port.tcp(health_check.health_check_port),
                f"Ingress on port {health_check.health_check_port} for {self.server_name} Health Check"
            )

        if props.file_system:
            security_group.connections.allow_to(props.file_system, ec2.Port.tcp(NFS_PORT))

        return security_group

    def create_cluster(self, props: ServerProps) -> ecs.Cluster:
        return ecs.Cluster(
            self, "Cluster",
            cluster_name=self.server_name,
            vpc=props.vpc
        )

    def create_service(self, cluster: ecs.Cluster, task_definition: ecs.FargateTaskDefinition,
                       subnet: ec2.SubnetSelection, security_group: ec2.SecurityGroup) -> ecs.FargateService:
        return ecs.FargateService(
            self, "FargateService",
            service_name=self.server_name,
            cluster=cluster,
            task_definition=task_definition,
            assign_public_ip=True,
            security_groups=[security_group],
            platform_version=ecs.FargatePlatformVersion.VERSION1_4,
            vpc_subnets=subnet,
            circuit_breaker=ecs.DeploymentCircuitBreaker(rollback=True),
            desired_count=1,
            # Never run a second copy of the server, not even during a deployment
            min_healthy_percent=0,
            max_healthy_percent=100
        )

    def create_task_definition(self, props: ServerProps) -> ecs.FargateTaskDefinition:
        task_definition_props = props.task_definition_props or TaskDefinitionProps()
        return ecs.FargateTaskDefinition(
            self, "TaskDefinition",
            family=self.server_name,
            execution_role=self.task_execution_role,
            task_role=self.task_role,
            **task_definition_props.as_kwargs()
        )

    def container_definition(self, props: ServerProps) -> dict:
        """Keyword arguments for ``add_container``"""
        options = {
            "container_name": self.server_name,
            "image": self.container_image(props.image_props),
            "essential": True,
            "logging": ecs.LogDrivers.aws_logs(
                stream_prefix=self.server_name,
                log_group=self.log_group
            ),
        }

        if props.environment_file:
            options["environment_files"] = [ecs.EnvironmentFile.from_asset(props.environment_file)]

        options.update(props.container_definition_props)
        return options

    def container_image(self, image_props: ImageProps) -> ecs.ContainerImage:
        if isinstance(image_props.repository, str):
            logger.info("%s: using registry image %s", self.server_name, image_props.repository)
            return ecs.ContainerImage.from_registry(image_props.repository)

        return ecs.ContainerImage.from_ecr_repository(image_props.repository, image_props.tag)

    def add_container_efs_volume(self, task_definition: ecs.FargateTaskDefinition, file_system: efs.FileSystem):
        task_definition.add_volume(
            name=self.server_name,
            efs_volume_configuration=ecs.EfsVolumeConfiguration(
                file_system_id=file_system.file_system_id
            )
        )

    def add_health_check(self, container: ecs.ContainerDefinition, props: HealthCheckProps):
        container.add_port_mappings(ecs.PortMapping(
            container_port=props.health_check_port,
            host_port=props.health_check_port,
            protocol=props.protocol
        ))

    def add_container_mount_points(self, volume_name: str, container: ecs.ContainerDefinition):
        container.add_mount_points(ecs.MountPoint(
            source_volume=volume_name,
            container_path=f"/mnt/{volume_name.lower()}",
            read_only=False
        ))

    def create_s3_file_access_policy(self, s3_location: s3.Location) -> list[iam.PolicyStatement]:
        get_object_statement = iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=["s3:GetObject"],
            resources=[f"arn:aws:s3:::{s3_location.bucket_name}/{s3_location.object_key}"]
        )
        get_bucket_location_statement = iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=["s3:GetBucketLocation"],
            resources=[f"arn:aws:s3:::{s3_location.bucket_name}"]
        )
        return [get_object_statement, get_bucket_location_statement]

    def add_access_to_environment_files(self, env_configs: list[ecs.EnvironmentFileConfig]):
        for env_config in env_configs:
            for statement in self.create_s3_file_access_policy(env_config.s3_location):
                self.task_execution_role.add_to_policy(statement)

    def create_load_balancer(self, vpc: ec2.IVpc, subnet: ec2.SubnetSelection,
                             service: ecs.FargateService, props: ServerProps) -> elbv2.NetworkLoadBalancer:
        network_props = props.network_props
        logger.info("%s: creating network load balancer on port %s", self.server_name, network_props.port)

        load_balancer = elbv2.NetworkLoadBalancer(
            self, "NLB",
            load_balancer_name=self.server_name,
            vpc=vpc,
            vpc_subnets=subnet,
            internet_facing=True
        )

        protocol = elbv2.Protocol.TCP if network_props.protocol == ecs.Protocol.TCP else elbv2.Protocol.UDP
        listener = load_balancer.add_listener(
            "Listener",
            port=network_props.port,
            protocol=protocol
        )

        # UDP targets cannot be health checked on the traffic port
        health_check = None
        if network_props.health_check:
            health_check = elbv2.HealthCheck(
                protocol=elbv2.Protocol.TCP,
                port=str(network_props.health_check.health_check_port)
            )

        self.target_group = listener.add_targets(
            "ECSTarget",
            target_group_name=self.server_name,
            port=network_props.port,
            protocol=protocol,
            health_check=health_check,
            targets=[service.load_balancer_target(
                container_name=self.container.container_name,
                container_port=network_props.port,
                protocol=network_props.protocol
            )]
        )

        CfnOutput(
            self, "LoadBalancerDNS",
            value=load_balancer.load_balancer_dns_name,
            description="Load Balancer DNS Name"
        )

        return load_balancer

    def create_dashboard(self, name: str) -> cloudwatch.Dashboard:
        return cloudwatch.Dashboard(
            self, "Dashboard",
            dashboard_name=name
        )

    def service_metric(self, metric_name: str) -> cloudwatch.Metric:
        """ECS utilisation metric for this server's service"""
        return cloudwatch.Metric(
            namespace="AWS/ECS",
            metric_name=metric_name,
            dimensions_map={
                "ServiceName": self.service.service_name,
                "ClusterName": self.cluster.cluster_name
            }
        )

    def utilization_graph(self, title: str, **kwargs) -> cloudwatch.GraphWidget:
        """CPU and memory on the left axis, anything else via kwargs"""
        return cloudwatch.GraphWidget(
            title=title,
            height=6,
            width=12,
            period=Duration.minutes(1),
            left=[
                self.service_metric("CPUUtilization"),
                self.service_metric("MemoryUtilization")
            ],
            left_y_axis=cloudwatch.YAxisProps(min=0, max=100, show_units=True),
            **kwargs
        )

    def add_metrics(self, dashboard: cloudwatch.Dashboard) -> None:
        dashboard.add_widgets(self.utilization_graph("CPU & Memory"))
