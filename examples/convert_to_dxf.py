import ezdxfrec


outline = ezdxfrec.new_polyline()
outline.update(layer="Walls", flag=1)
for x, y in ((0.0, 0.0), (4.0, 0.0), (4.0, 3.0), (0.0, 3.0)):
    ezdxfrec.add_vertex(outline, x, y)

ezdxfrec.write("/tmp/outline_r2000.dxf", [outline], "R2000")

result = ezdxfrec.to_dxf(
    "/tmp/outline_r2000.dxf",
    "/tmp/outline_out.dxf",
    types="POLYLINE",
    dxf_version="R2010",
)
print(result)
