"""
Embedded GLSL for the match-and-recolor pass.

Bind points are fixed and shared with GpuResourceManager:
texture unit 0 (frame), sampler unit 0 (linear), uniform block binding 2
(16 std140 vec3 entries, 16-byte stride).
"""
from string import Template

from palettecam.services.colors.palette import PALETTE_SIZE

TEXTURE_UNIT = 0
SAMPLER_UNIT = 0
PALETTE_BINDING = 2
PALETTE_BLOCK = "TargetColors"

# One oversized triangle covering clip space, no vertex attributes
VERTEX_SHADER = """
#version 330

void main() {
    vec2 positions[3] = vec2[3](
        vec2(-1.0, -1.0),
        vec2( 3.0, -1.0),
        vec2(-1.0,  3.0)
    );
    gl_Position = vec4(positions[gl_VertexID], 0.0, 1.0);
}
"""

_FRAGMENT_TEMPLATE = Template("""
#version 330

#define TARGET_COLORS_SIZE $palette_size

uniform sampler2D input_texture;
uniform vec2 resolution;
uniform float threshold;
uniform vec3 marker_color;

layout(std140) uniform $block_name {
    vec3 target_colors[TARGET_COLORS_SIZE];
};

out vec4 frag_color;

void main() {
    vec2 uv = gl_FragCoord.xy / resolution;
    // frame rows are stored top-down
    uv.y = 1.0 - uv.y;
    vec4 color = texture(input_texture, uv);

    bool matched = false;
    for (int i = 0; i < TARGET_COLORS_SIZE; i++) {
        if (distance(color.rgb, target_colors[i]) < threshold) {
            matched = true;
            break;
        }
    }

    if (matched) {
        frag_color = vec4(marker_color, color.a);
    } else {
        frag_color = color;
    }
}
""")

FRAGMENT_SHADER = _FRAGMENT_TEMPLATE.substitute(
    palette_size=PALETTE_SIZE,
    block_name=PALETTE_BLOCK,
)

FULLSCREEN_VERTICES = 3
