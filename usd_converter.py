#!/usr/bin/env python3
"""
USD to Harfang Converter - Main Orchestrator Module
Coordinates a whole import using the readers and exporters modules

One run:
1. Prepare the output directory (fatal if unusable)
2. Open the source stage ONCE
3. Ingest every texture of the stage (content deduplicated)
4. Export the node tree, sharing geometries and prototype sub-scenes
5. Write the main scene
"""

import json
import time
from pathlib import Path

from core.animation_detector import AnimationDetector
from core.context import ConversionContext
from core.log import ConversionLog
from core.output_paths import OutputDirectoryError, prepare_output_directory, resolve_output_path
from core.scene_data import Scene
from exporters.node_exporter import NodeExporter
from exporters.scene_writer import HarfangSceneWriter
from exporters.texture_ingestion import TextureIngestion
from readers import create_reader

CONVERTER_NAME = "USD->HG Converter"
CONVERTER_VERSION = "1.0.0"

BRDF_MAP = "core/pbr/brdf.dds"
IRRADIANCE_MAP = "core/pbr/probe.hdr.irradiance"
RADIANCE_MAP = "core/pbr/probe.hdr.radiance"


def scene_name(config):
    """Output scene name: explicit name, else the input file stem"""
    if config.name:
        return config.name
    return Path(config.input_path).stem if config.input_path else "scene"


class USDToHarfangConverter:
    """USD to Harfang scene converter (orchestrator/facade)

    This class coordinates the conversion process:
    1. Read input file ONCE (via readers module)
    2. Run the texture ingestion pass over the whole stage
    3. Traverse the node tree (via NodeExporter)
    4. Record animated nodes (via AnimationDetector)
    5. Save the scene through the scene writer
    """

    def __init__(self, progress_callback=None):
        """Initialize converter

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
        """
        self.progress_callback = progress_callback

    def convert(self, config, writer=None):
        """Convert the input file named by a Config

        Args:
            config: Run Config
            writer: Scene writer (default: HarfangSceneWriter)

        Returns:
            dict: Results with keys:
                - 'success': bool
                - 'scene_file': Main scene path
                - 'files': Every file written during the run
                - 'message': Summary message
        """
        log = ConversionLog(self.progress_callback, quiet=config.quiet)
        log.debug(f"{CONVERTER_NAME} {CONVERTER_VERSION}")

        try:
            prepare_output_directory(config.base_output_path)
            reader = create_reader(config.input_path)
            log.log(f"Input: {config.input_path} ({reader.get_format_name()})")
            stage = reader.get_stage()
        except (OutputDirectoryError, ValueError, ImportError) as e:
            log.error(str(e))
            log.error("[ImportScene: KO]")
            return {
                'success': False,
                'scene_file': None,
                'files': [],
                'message': f"Conversion failed: {e}",
            }

        return self.convert_stage(stage, config, writer, log)

    def convert_stage(self, stage, config, writer=None, log=None):
        """Convert an already opened stage

        Args:
            stage: SourceStage
            config: Run Config
            writer: Scene writer (default: HarfangSceneWriter)
            log: ConversionLog (default: a new one for this converter)

        Returns:
            dict: Same as convert()
        """
        start = time.perf_counter()
        if log is None:
            log = ConversionLog(self.progress_callback, quiet=config.quiet)

        try:
            prepare_output_directory(config.base_output_path)
        except OutputDirectoryError as e:
            log.error(str(e))
            log.error("[ImportScene: KO]")
            return {'success': False, 'scene_file': None, 'files': [], 'message': f"Conversion failed: {e}"}

        context = ConversionContext(config, log, writer or HarfangSceneWriter())
        name = scene_name(config)

        log.log(f"Output: {config.base_output_path}")
        log.log(f"Scene: {name}")
        if config.finalizer_script:
            log.log(f"Warning: finalizer script '{config.finalizer_script}' is not run by this converter")

        TextureIngestion(context).export(stage)

        exporter = NodeExporter(context)
        scene = exporter.export(stage, Scene())

        resources = context.resources
        scene.environment.brdf_map = resources.textures.add(BRDF_MAP)
        scene.environment.irradiance_map = resources.textures.add(IRRADIANCE_MAP)
        scene.environment.radiance_map = resources.textures.add(RADIANCE_MAP)

        self._record_animation(stage, scene, context, name)

        scene_file, should_write = resolve_output_path(
            config.base_output_path, name, "", "scn", config.policy_scene)
        if should_write:
            log.debug(f"Export scene to '{scene_file}'")
            exporter.write_scene(scene_file, scene)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        log.log(f"Import complete, took {elapsed_ms} ms")
        log.log("[ImportScene: OK]")

        return {
            'success': True,
            'scene_file': scene_file,
            'files': list(context.written_files),
            'message': f"Exported {len(scene.nodes)} node(s), {len(context.written_files)} file(s) written",
        }

    def _record_animation(self, stage, scene, context, name):
        """Embed the animated node lists in the scene or write them beside it"""
        detector = AnimationDetector()
        animation = detector.analyze_scene(stage)
        if not any(animation.values()):
            return

        context.log.log(detector.get_animation_summary(animation))
        config = context.config
        if not config.anim_to_file:
            scene.animation = animation
            return

        path, should_write = resolve_output_path(
            config.base_output_path, name, "", "anim.json", config.policy_anim)
        if not should_write:
            return
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(animation, f, indent=1)
        except OSError as e:
            context.log.error(f"Failed to write animation file '{path}': {e}")
            return
        context.record_write(path)
