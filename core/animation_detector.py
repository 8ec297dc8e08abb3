#!/usr/bin/env python3
"""
Animation Detector Module
Detects animated nodes so their presence can be recorded with the scene.

Nothing is baked: the detector only classifies nodes by which of their
attributes carry time samples.
"""

from readers.base_reader import NodeKind


class AnimationDetector:
    """Classifies source nodes by animation type

    Distinguishes between:
    - Transform animation: time-sampled xformOp attributes
    - Vertex animation: time-sampled mesh points
    """

    TRANSFORM_PREFIX = "xformOp:"
    VERTEX_ATTRIBUTES = ("points",)

    def detect_transform_animation(self, node):
        """Check whether any transform op of the node is time sampled"""
        return any(name.startswith(self.TRANSFORM_PREFIX) for name in node.animated_attributes())

    def detect_vertex_animation(self, node):
        """Check whether a mesh node has time-sampled points"""
        if node.kind != NodeKind.MESH:
            return False
        return any(name in self.VERTEX_ATTRIBUTES for name in node.animated_attributes())

    def analyze_scene(self, stage):
        """Analyze the whole stage

        Args:
            stage: SourceStage

        Returns:
            dict: Node paths by category:
                - 'transform_animated': Nodes with animated transforms
                - 'vertex_animated': Meshes with animated points
        """
        result = {
            'transform_animated': [],
            'vertex_animated': [],
        }
        for node in stage.traverse_all():
            if node.kind.is_data_only:
                continue
            if self.detect_transform_animation(node):
                result['transform_animated'].append(node.path)
            if self.detect_vertex_animation(node):
                result['vertex_animated'].append(node.path)
        return result

    def get_animation_summary(self, animation_data):
        """Generate human-readable summary of animation analysis

        Args:
            animation_data: Result from analyze_scene()

        Returns:
            str: Formatted summary text
        """
        lines = ["Animation Analysis:"]
        lines.append(f"  - Transform Animated: {len(animation_data['transform_animated'])} nodes")
        lines.append(f"  - Vertex Animated: {len(animation_data['vertex_animated'])} meshes")
        return "\n".join(lines)
