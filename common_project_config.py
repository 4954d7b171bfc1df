'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
from __future__ import annotations
import json
import os
from pathlib import Path
from jinja2.nativetypes import NativeEnvironment
from typing import Dict, List

import logging
_top_logger = logging.getLogger(__name__)

from acorn_pups_iot.iot_definitions import IotStackConfig

DEFAULT_ENVIRONMENT = "dev"
DEFAULT_REGION = "us-east-1"


class ProjectConfig():
    ''' '''
    @staticmethod
    def create_from_file(
        environment_name:str=DEFAULT_ENVIRONMENT,
        project_config_path:Path=Path("project_config.json"),
        jinja_sections:List[str]=["project"]
        )->ProjectConfig:
        ''' '''
        #*****************************************
        #* Load Project Configuration
        with open(project_config_path,"r") as f:
            try:
                project_config_data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"{project_config_path} is not a valid json: {e}")

        return ProjectConfig(project_config=project_config_data, environment_name=environment_name, jinja_sections=jinja_sections)

    @staticmethod
    def get_config_part(source:dict, key:str)->dict:
        res = dict(source.get(key, {}))
        res.pop("description", None)
        res.pop("_description", None)
        return res


    def __init__(self, project_config:dict, environment_name:str=DEFAULT_ENVIRONMENT, jinja_sections:List[str]=["project"]) -> None:
        '''
            @param {dict} project_config - dictionary with all config information
            @param {str} environment_name - one of the keys of "environments" section (dev, prod)
            @param {List[str]} jinja_sections - list of sections to be rendered with Jinja
        '''
        if not isinstance(project_config, dict):
            raise ValueError(f"project config must be a json object, got {type(project_config).__name__}")
        #* Deployment ENV
        profile = project_config.get("Cloud_Deployment_ENV", {}).get("depl_profile", None)
        profile = None if profile=="default" else profile
        acc = project_config.get("Cloud_Deployment_ENV", {}).get("depl_account", None)
        acc = os.environ.get("CDK_DEFAULT_ACCOUNT") if acc in [None, "default"] else acc
        region = project_config.get("Cloud_Deployment_ENV", {}).get("depl_region", None)
        region = os.environ.get("CDK_DEFAULT_REGION", DEFAULT_REGION) if region in [None, "default"] else region
        #* Environment specific configuration
        environments_config = ProjectConfig.get_config_part(project_config, "environments")
        if environment_name not in environments_config:
            raise ValueError(f"Invalid environment: {environment_name}. Must be one of {list(environments_config.keys())}")
        if not isinstance(environments_config[environment_name], dict):
            raise ValueError(f"'{environment_name}' environment configuration must be a json object, got {environments_config[environment_name]!r}")
        env_config = ProjectConfig.get_config_part(environments_config, environment_name)
        _top_logger.debug(f"Configuration for {environment_name}: {env_config}")
        # IotStackConfig validates values and raises ValueError
        try:
            self.stack_config = IotStackConfig(environment=environment_name, **env_config)
        except TypeError as e:
            raise ValueError(f"Unexpected option in '{environment_name}' environment configuration: {e}")
        manage_device_policy = project_config.get("manage_device_policy", False)
        if not isinstance(manage_device_policy, bool):
            raise ValueError(f"manage_device_policy must be true or false, got {manage_device_policy!r}")
        #*****************************************

        self.config_data = {
            **{
                "environment": {
                    "region": region,
                    "account": acc,
                    "profile": profile,
                },
                "environment_name": environment_name,
                "manage_device_policy": manage_device_policy,
                "stack_prefix": f"acorn-pups-iot-{environment_name}",
                "proj_tags": {"Project": "acorn-pups", "Environment": environment_name},
            }
        }
        # we need to transform some parameters provided as Jinja templates
        jjenv = NativeEnvironment()
        # we'll run jinja replacement multiple times to resolve hierarchies of templates
        for iii in range(0,3):
            for section in jinja_sections:
                for k,v in ProjectConfig.get_config_part(project_config, section).items():
                    if isinstance(v, str):
                        self.config_data[k] = jjenv.from_string(v).render(**self.config_data)
                    elif isinstance(v, list):
                        self.config_data[k] = [ jjenv.from_string(vv).render(**self.config_data) for vv in v ]
                    elif isinstance(v, dict):
                        # tag values must stay strings
                        self.config_data[k] = { kk: str(jjenv.from_string(vv).render(**self.config_data)) for kk,vv in v.items() }
        if "tags" in self.config_data:
            self.config_data["proj_tags"] = self.config_data.pop("tags")

        # now we'll assign every property from collected options
        for k,v in self.config_data.items():
            setattr(self, k, v)
