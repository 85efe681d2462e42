from typing import Optional

from aws_cdk import (
    aws_ecr as ecr,
    aws_iam as iam,
    aws_logs as logs
)
from constructs import Construct

ECS_TASKS_PRINCIPAL = "ecs-tasks.amazonaws.com"


class CommonRoles:
    """IAM roles shared by every server task"""

    @staticmethod
    def task_role(scope: Construct, construct_id: str) -> iam.Role:
        role = iam.Role(
            scope, "TaskRole",
            role_name=f"{construct_id}TaskRole",
            description="Write CloudWatch metrics",
            assumed_by=iam.ServicePrincipal(ECS_TASKS_PRINCIPAL)
        )

        # Custom game metrics are pushed from inside the container
        role.add_to_policy(iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=["cloudwatch:PutMetricData"],
            resources=["*"]
        ))

        role.add_to_policy(iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=[
                "kms:Decrypt",
                "secretsmanager:GetSecretValue",
                "ssm:GetParameters"
            ],
            resources=["*"]
        ))

        return role

    @staticmethod
    def task_execution_role(scope: Construct, construct_id: str,
                            log_group: logs.ILogGroup,
                            repository: Optional[ecr.IRepository] = None) -> iam.Role:
        role = iam.Role(
            scope, "TaskExecutionRole",
            role_name=f"{construct_id}TaskExecutionRole",
            description="Read from ECR and write to CloudWatch logs",
            assumed_by=iam.ServicePrincipal(ECS_TASKS_PRINCIPAL)
        )

        role.add_to_policy(iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=[
                "logs:CreateLogStream",
                "logs:PutLogEvents"
            ],
            resources=[log_group.log_group_arn]
        ))

        # Pull from the local repository, or from anywhere for registry images
        role.add_to_policy(iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=[
                "ecr:BatchCheckLayerAvailability",
                "ecr:GetDownloadUrlForLayer",
                "ecr:BatchGetImage"
            ],
            resources=[repository.repository_arn if repository else "*"]
        ))

        role.add_to_policy(iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=["ecr:GetAuthorizationToken"],
            resources=["*"]
        ))

        return role
