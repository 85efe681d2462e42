from aws_cdk import aws_ec2 as ec2
from constructs import Construct

SUBNET_GROUP_NAME = "GameServers"
GAME_PORT = 25565


class Networking(Construct):
    """VPC and external access rules shared by every game server"""

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Single AZ, public subnets only. No NAT gateways to keep costs down.
        self.vpc = ec2.Vpc(
            self, "VPC",
            nat_gateways=0,
            max_azs=1,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name=SUBNET_GROUP_NAME,
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=28
                )
            ]
        )

        self.security_group = ec2.SecurityGroup(
            self, "ExternalAccess",
            vpc=self.vpc,
            description=f"Allow inbound traffic on {GAME_PORT}",
            allow_all_outbound=False
        )

        self._create_security_group_rules()

    def _create_security_group_rules(self):
        self.security_group.add_ingress_rule(
            ec2.Peer.any_ipv4(),
            ec2.Port.udp(GAME_PORT)
        )

        self.security_group.add_egress_rule(
            ec2.Peer.any_ipv4(),
            ec2.Port.tcp(443),
            "Allow outbound HTTPS traffic"
        )
